"""Service layer.

Services:
- task_grouping.py: Logical task views for tutors and students
- notifications.py: Persist-then-push notification fanout
- reminders.py: Reminder timers, ad-hoc jobs and the deadline sweep schedule
- tasks.py / projects.py: CRUD with notification side effects
- activity_log.py: User activity history
- calendar.py: Best-effort calendar sync collaborator
- auth.py: Authentication and JWT management
- errors.py: Exceptions shared by all services

Modules are imported directly (``from app.services.notifications import ...``)
so the event channel can depend on ``errors`` without an import cycle.
"""
