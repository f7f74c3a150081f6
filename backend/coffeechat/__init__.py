"""CoffeeChat matching, meeting and sanction backend."""
