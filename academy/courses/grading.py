"""
Quiz construction and grading.
Pure functions over plain dicts so they can be used by routes and tests alike.
"""

from typing import List, Optional

from academy.core.database import generate_id

DEFAULT_PASSING_PERCENTAGE = 60


def build_questions(raw_questions: List[dict]) -> List[dict]:
    """
    Turn authoring input {question, options: [str], correct_answer, marks}
    into stored questions with {text, is_correct} options.
    `correct_answer` may be an option's text or its index.
    """
    questions = []
    for raw in raw_questions:
        correct = raw.get("correct_answer")
        texts = raw.get("options", [])
        # An exact text match wins over reading the answer as an index
        by_text = isinstance(correct, str) and correct in texts

        options = []
        for index, text in enumerate(texts):
            is_correct = text == correct if by_text else str(index) == str(correct)
            options.append({"text": text, "is_correct": is_correct})

        marks = raw.get("marks")
        questions.append({
            "question_id": generate_id("Q"),
            "question": raw["question"],
            "options": options,
            "marks": marks if marks is not None else 1,
        })
    return questions


def total_marks_for(questions: List[dict]) -> float:
    return sum(q.get("marks") or 0 for q in questions) or len(questions)


def _find_answer(answers: List[dict], question: dict, index: int) -> Optional[dict]:
    for answer in answers:
        if answer.get("question_id") is not None and answer["question_id"] == question.get("question_id"):
            return answer
        if answer.get("question_index") is not None and answer["question_index"] == index:
            return answer
        if answer.get("question") is not None and answer["question"] == question.get("question"):
            return answer
    return None


def _match_option(options: List[dict], selected) -> Optional[dict]:
    # Same precedence as build_questions: option text first, then index
    for option in options:
        if option.get("text") == selected:
            return option
    for index, option in enumerate(options):
        if str(index) == str(selected):
            return option
    return None


def grade_quiz(quiz: dict, answers: List[dict]) -> dict:
    """
    Score a submission.

    Each question earns its marks only when the selected option is a correct
    one; unanswered or unmatched questions earn nothing.
    """
    questions = quiz.get("questions", [])
    total_marks = quiz.get("total_marks") or total_marks_for(questions)
    passing = quiz.get("passing_percentage") or DEFAULT_PASSING_PERCENTAGE

    score = 0
    results = []
    for index, question in enumerate(questions):
        answer = _find_answer(answers, question, index)
        selected = answer.get("selected_option") if answer else None

        is_correct = False
        if selected is not None:
            matched = _match_option(question.get("options", []), selected)
            is_correct = bool(matched and matched.get("is_correct"))

        marks = question.get("marks")
        marks_awarded = (marks if marks is not None else 1) if is_correct else 0
        score += marks_awarded

        results.append({
            "question_id": question.get("question_id"),
            "user_answer": selected,
            "correct_options": [o["text"] for o in question.get("options", []) if o.get("is_correct")],
            "is_correct": is_correct,
            "marks_awarded": marks_awarded,
        })

    percentage = round(score / total_marks * 100) if total_marks else 0

    return {
        "score": score,
        "total_marks": total_marks,
        "percentage": percentage,
        "passed": percentage >= passing,
        "passing_percentage": passing,
        "results": results,
    }


def hide_answers(quiz: dict) -> dict:
    """Strip correctness flags before showing a quiz to a student"""
    quiz["questions"] = [
        {**q, "options": [{"text": o["text"]} for o in q.get("options", [])]}
        for q in quiz.get("questions", [])
    ]
    quiz.pop("attempts", None)
    return quiz
