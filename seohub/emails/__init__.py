"""Email rendering and delivery queue."""
