"""Business modules of the travel back office: booking, invoicing, cash, accounting."""
