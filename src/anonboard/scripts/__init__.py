"""Administrative command line tools."""
