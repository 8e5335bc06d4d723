"""Conversation feature package: entities, repositories, service, controller, router.

The service is the PostgreSQL persistence gateway used by chat sessions; the
router exposes read and housekeeping operations on stored conversations.
"""
