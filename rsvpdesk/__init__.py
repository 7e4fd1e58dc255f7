"""RSVP Desk: event RSVPs with an organizer dashboard."""
