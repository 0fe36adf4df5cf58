"""Prompt builders for chat, grading and material evaluation."""

from .content_analyzer import ContentType
from .documents import is_problem

EMPTY_HISTORY = "[]"
PRE_UPLOAD_CONTENT_LIMIT = 8000


def _has_history(prior_conversation):
    if prior_conversation is None:
        return False
    history = str(prior_conversation).strip()
    return bool(history) and history != EMPTY_HISTORY


def _context_text(retrieved_context):
    if retrieved_context is None:
        return ""
    return getattr(retrieved_context, "text", retrieved_context) or ""


# ===========================
# Chat
# ===========================

def compose_chat_prompt(user_message, prior_conversation, retrieved_context, classification):
    """Merge the question, history and database context into one instruction text."""
    context = _context_text(retrieved_context)

    prompt = "You are an intelligent educational assistant with access to the learning management system database. "
    prompt += "You help students and instructors with questions about courses, assignments, and materials.\n\n"

    if context:
        prompt += "IMPORTANT: I have retrieved the following current information from the database:\n\n"
        prompt += context
        prompt += "\n"
        prompt += "Please use this actual database information to answer the user's question accurately. "
        prompt += "Present the information in a helpful, organized way.\n\n"

    if _has_history(prior_conversation):
        prompt += f"Previous conversation context:\n{prior_conversation}\n\n"

    prompt += f"User's question: {user_message}\n\n"

    if classification.content_type == ContentType.MATERIALS:
        prompt += "This question is about course materials. "
        if context:
            prompt += "Use the database information above to provide specific details about available materials."
        else:
            prompt += "Provide general guidance about course materials and suggest checking the learning system."
    elif classification.content_type == ContentType.ASSIGNMENTS:
        prompt += "This question is about assignments. "
        if context:
            prompt += (
                "Use the database information above to provide specific details about assignments, "
                "including due dates and status."
            )
        else:
            prompt += "Provide general guidance about assignments and suggest checking the learning system."
    else:
        prompt += "Please provide a helpful response to this educational question."

    return prompt


# ===========================
# Grading
# ===========================

def _usable(content):
    return bool(content and content.strip()) and not is_problem(content)


def build_grading_prompt(submission, questions_content, answers_content):
    """
    Grading prompt for one submission. ``submission`` is a dict with title,
    course, student_name, context and answer keys.
    """
    prompt = "You are an experienced teacher tasked with grading a student assignment. "
    prompt += "Please analyze the submission and provide a grade and detailed feedback.\n\n"

    prompt += "=== ASSIGNMENT DETAILS ===\n"
    prompt += f"Title: {submission.get('title') or 'Untitled'}\n"
    prompt += f"Course: {submission.get('course') or 'Not specified'}\n"
    prompt += f"Student: {submission.get('student_name') or 'Unknown'}\n"
    if submission.get("context"):
        prompt += f"Assignment Context: {submission['context']}\n"

    prompt += "\n=== ASSIGNMENT QUESTIONS (FROM TEACHER) ===\n"
    if _usable(questions_content):
        prompt += f"Questions File Content:\n{questions_content}\n\n"
    elif questions_content:
        prompt += f"Questions File: {questions_content}\n\n"
    else:
        prompt += "Questions File: [No questions file provided]\n\n"

    prompt += "=== STUDENT SUBMISSION ===\n"
    answer = submission.get("answer") or ""
    if answer.strip():
        prompt += f"Student Text Answer: {answer}\n\n"
    else:
        prompt += "Student Text Answer: [No text answer provided]\n\n"

    if _usable(answers_content):
        prompt += f"Student's Answer File Content:\n{answers_content}\n\n"
    elif answers_content:
        prompt += f"Student's Answer File: {answers_content}\n\n"
    else:
        prompt += "Student's Answer File: [No answer file uploaded]\n\n"

    prompt += "=== GRADING INSTRUCTIONS ===\n"
    prompt += "Please evaluate this submission based on:\n"
    prompt += "1. Correctness and accuracy of the answers compared to the questions asked\n"
    prompt += "2. Completeness - did the student answer all questions?\n"
    prompt += "3. Understanding of the topic demonstrated in the answers\n"
    prompt += "4. Quality of explanation and reasoning\n"
    prompt += "5. Following assignment requirements and format\n\n"

    if _usable(questions_content) and _usable(answers_content):
        prompt += "IMPORTANT: You have access to both the original questions and the student's answers. "
        prompt += "Please compare the student's responses directly against each question to evaluate accuracy and completeness. "
        prompt += "Provide specific feedback referencing individual questions and answers.\n\n"
    elif _usable(questions_content):
        prompt += "IMPORTANT: You have the original questions but the student may have provided answers in text form or no file was uploaded. "
        prompt += "Evaluate based on the questions provided and any available student responses.\n\n"

    prompt += "Provide your response in the following JSON format:\n"
    prompt += "{\n"
    prompt += '  "grade": "A/B/C/D/F",\n'
    prompt += '  "percentage": 85,\n'
    prompt += '  "remarks": "Detailed feedback explaining the grade...",\n'
    prompt += '  "strengths": ["List of things done well"],\n'
    prompt += '  "improvements": ["List of areas for improvement"]\n'
    prompt += "}\n\n"
    prompt += "Do NOT wrap your response in markdown code blocks. Return only raw JSON.\n"
    prompt += "Be constructive, specific, and fair in your evaluation. "
    prompt += "Reference specific questions and answers when providing feedback."
    return prompt


# ===========================
# Material evaluation
# ===========================

def build_evaluation_prompt(course, description, filename, file_content, course_context, is_pre_upload=False):
    prompt = "You are an expert educational content reviewer and instructional designer. "
    if is_pre_upload:
        prompt += "A teacher wants feedback on a course material BEFORE uploading it for students. "
    else:
        prompt += "You are reviewing a course material that has been uploaded for students. "
    prompt += "Please analyze the submitted material and provide a comprehensive evaluation.\n\n"

    prompt += "=== MATERIAL DETAILS ===\n"
    prompt += f"Course: {course or 'Not specified'}\n"
    prompt += f"Filename: {filename or 'Not provided'}\n"
    prompt += f"Description: {description or 'No description provided'}\n"
    if is_pre_upload:
        prompt += "Evaluation Type: Pre-upload analysis (content read from browser)\n"
    prompt += "\n"

    prompt += "=== COURSE CONTEXT ===\n"
    prompt += f"{course_context}\n\n"

    prompt += "=== MATERIAL CONTENT ===\n"
    if _usable(file_content):
        content = file_content
        if len(content) > PRE_UPLOAD_CONTENT_LIMIT:
            content = content[:PRE_UPLOAD_CONTENT_LIMIT] + "\n... [content truncated]"
        prompt += f"File Content:\n{content}\n\n"
    elif file_content:
        prompt += f"File Status: {file_content}\n\n"
    else:
        prompt += "File Content: [No file content available - evaluate based on filename and description]\n\n"

    prompt += "=== EVALUATION CRITERIA ===\n"
    prompt += "Please evaluate this material based on:\n"
    prompt += "1. Educational Value (25%) - Does it provide clear learning outcomes?\n"
    prompt += "2. Content Quality (25%) - Is the content accurate, well-structured, and comprehensive?\n"
    prompt += "3. Student Suitability (20%) - Is it appropriate for the target audience?\n"
    prompt += "4. Clarity & Organization (15%) - Is the content well-organized and easy to understand?\n"
    prompt += "5. Completeness (15%) - Does it cover the topic adequately?\n\n"

    if is_pre_upload:
        prompt += "=== PRE-UPLOAD EVALUATION GUIDANCE ===\n"
        prompt += "Since this is a pre-upload evaluation:\n"
        prompt += "- Focus on helping the teacher improve the material before students see it\n"
        prompt += "- Provide specific, actionable suggestions for enhancement\n"
        prompt += "- Consider the educational context and course objectives\n\n"

    prompt += "=== RECOMMENDATION GUIDELINES ===\n"
    prompt += "- 90-100%: Excellent material, ready for immediate use\n"
    prompt += "- 80-89%: Good material, minor improvements suggested\n"
    prompt += "- 70-79%: Average material, some enhancements needed\n"
    prompt += "- 60-69%: Below average, significant improvements required\n"
    prompt += "- Below 60%: Poor quality, major revision needed\n\n"
    prompt += "IMPORTANT: Materials with less than 80% recommendation should be flagged as requiring enhancement before upload.\n\n"

    prompt += "Provide your response in the following JSON format:\n"
    prompt += "{\n"
    prompt += '  "recommendationPercentage": 85,\n'
    prompt += '  "overallRating": "Good",\n'
    prompt += '  "isRecommended": true,\n'
    prompt += '  "evaluationSummary": "Brief summary of the evaluation...",\n'
    prompt += '  "strengths": ["List of material strengths"],\n'
    prompt += '  "improvements": ["List of suggested improvements"],\n'
    prompt += '  "educationalValue": 85,\n'
    prompt += '  "contentQuality": 90,\n'
    prompt += '  "studentSuitability": 80,\n'
    prompt += '  "clarityOrganization": 85,\n'
    prompt += '  "completeness": 75,\n'
    prompt += '  "recommendations": "Specific recommendations for improvement..."\n'
    prompt += "}\n\n"
    prompt += "Do NOT wrap your response in markdown code blocks. Return only raw JSON.\n"
    prompt += "Be thorough, constructive, and specific in your evaluation."
    return prompt
