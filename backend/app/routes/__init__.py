# Routes package init
"""
StackIt Backend — API Routes Package
=====================================

What:  HTTP route handlers for the voting, acceptance and reputation API.
How:   Each module handles one resource; all of them are thin wrappers over
       the consistency engine or the notification service.

Route Inventory:
    - votes.py:          POST/DELETE /api/questions/{id}/vote
                         POST/DELETE /api/answers/{id}/vote
    - questions.py:      POST /api/questions/{id}/accept-answer/{answer_id}
                         POST /api/questions/{id}/unaccept-answer
                         DELETE /api/questions/{id}, DELETE /api/answers/{id}
    - users.py:          GET/POST /api/users/{id}/reputation
    - notifications.py:  /api/notifications inbox
    - health.py:         GET /health
    - deps.py:           caller identity (X-User-Id) and engine dependencies

Routes handle HTTP concerns only. Rule violations are raised by the engine
as StackItError subclasses and mapped to status codes in main.py.
"""
