"""CommandZone: Commander deck board with live legality checks."""
