"""SQLModel tables and recurrence rule models."""
