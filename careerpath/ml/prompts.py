FEEDBACK_CATEGORIES = [
    "Communication Skills",
    "Technical Knowledge",
    "Problem-Solving",
    "Cultural & Role Fit",
    "Confidence & Clarity",
]

FEEDBACK_SYSTEM = (
    "You are a professional interviewer analyzing a mock interview. "
    "Your task is to evaluate the candidate based on structured categories"
)

FEEDBACK_PROMPT = """
You are an AI interviewer analyzing a mock interview. Your task is to evaluate the candidate based on structured categories. Be thorough and detailed in your analysis. Don't be lenient with the candidate. If there are mistakes or areas for improvement, point them out.
Transcript:
{transcript}

Please score the candidate from 0 to 100 in the following areas. Do not add categories other than the ones provided:
- **Communication Skills**: Clarity, articulation, structured responses.
- **Technical Knowledge**: Understanding of key concepts for the role.
- **Problem-Solving**: Ability to analyze problems and propose solutions.
- **Cultural & Role Fit**: Alignment with company values and job role.
- **Confidence & Clarity**: Confidence in responses, engagement, and clarity.

Return a single JSON object with the keys:
"totalScore" (number), "categoryScores" (array of {{"name", "score", "comment"}} in the order above),
"strengths" (array of strings), "areasForImprovement" (array of strings), "finalAssessment" (string).
"""

INTERVIEW_QUESTIONS_PROMPT = """Prepare questions for a job interview.
The job role is {role}.
The job experience level is {level}.
The tech stack used in the job is: {techstack}.
The focus between behavioural and technical questions should lean towards: {type}.
The amount of questions required is: {amount}.
Please return only the questions, without any additional text.
The questions are going to be read by a voice assistant so do not use "/" or "*" or any other special characters which might break the voice assistant.
Return the questions formatted like this:
["Question 1", "Question 2", "Question 3"]
"""

QUIZ_PROMPT = """Prepare questions and answers according to these notes = {notes}

The questions are going to be read by a voice assistant, so do not use "/" or "*" or any other special characters which might break the voice assistant.

Return the output as a single JSON object with two keys: "questions" and "answers".
Each key should have an array of strings as its value.

Example format:
{{
  "questions": ["Question 1?", "Question 2?", "Question 3?"],
  "answers": ["Answer 1.", "Answer 2.", "Answer 3."]
}}
"""
