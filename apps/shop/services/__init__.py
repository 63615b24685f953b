"""Service layer behind the shop views."""
