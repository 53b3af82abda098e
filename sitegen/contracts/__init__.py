"""Queue message contracts and API DTOs."""
