"""gogdiff command line."""
