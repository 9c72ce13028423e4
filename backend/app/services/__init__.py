# Services package init
"""
StackIt Backend — Services Layer
=================================

What:  Business rules between the routes (HTTP) and the repositories
       (persistence).

Service Inventory:
    - ConsistencyEngine: votes, acceptance, guarded deletes, reputation
      adjustments; each call is one atomic unit of work
    - UnitOfWork: transaction per attempt, tenacity retry on write conflicts
    - ReputationLedger: the only writer of users.reputation, with audit rows
    - guards: pure deletion preconditions
    - NotificationSink / QueueNotificationSink: post-commit, fire-and-forget
      notification hand-off and background writer
    - NotificationService: inbox queries for the notification routes
"""
