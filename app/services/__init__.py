"""
Services layer - Business logic goes here.
Keep services focused on specific domains (alerts, users, notifications).

DESIGN PRINCIPLE:
- Services contain business logic, NOT routes
- Alert writes go through alert_lifecycle; reads through alert_service
- Side effects are returned by the lifecycle and carried out by the outbox
"""
