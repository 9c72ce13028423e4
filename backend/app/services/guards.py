"""
StackIt Backend — Deletion Guards
==================================

What:  Preconditions checked before a question or answer is soft-deleted.
Why:   Deleting an accepted answer would leave `Question.accepted_answer_id`
       pointing at a dead row and strand the author's +15. Deleting a question
       with live answers would orphan them.
How:   Pure predicates: they read the entity (and a count) and raise
       ConflictError. No side effects; the engine performs the delete
       through the repository only after the guard passes.
"""

from app.exceptions import ConflictError
from app.models import Answer, Question


def guard_answer_deletion(answer: Answer) -> None:
    """An accepted answer must be unaccepted (by the question author) first."""
    if answer.is_accepted:
        raise ConflictError(
            message="Cannot delete an accepted answer. Unaccept it first.",
            context={"answer_id": str(answer.id), "question_id": str(answer.question_id)},
        )


def guard_question_deletion(question: Question, live_answer_count: int) -> None:
    """A question can only be deleted once none of its answers remain."""
    if live_answer_count > 0:
        raise ConflictError(
            message="Cannot delete question with answers. Please delete all answers first.",
            context={"question_id": str(question.id), "answers": live_answer_count},
        )
