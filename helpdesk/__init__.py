"""IT helpdesk ticketing service."""
