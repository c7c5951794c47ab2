"""Plain data types shared by services, repositories and cogs."""
