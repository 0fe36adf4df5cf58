import os

from .app import create_app
from .config import load_settings


def main():
    settings = load_settings()
    port = int(os.environ.get('PORT', settings.port))
    create_app(settings).run(host='0.0.0.0', port=port, debug=settings.debug)


if __name__ == '__main__':
    main()
