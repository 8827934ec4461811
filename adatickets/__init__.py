"""ADAtickets: ticket lifecycle service with audit trail and notifications."""
