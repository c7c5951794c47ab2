"""Discord embed builders."""
