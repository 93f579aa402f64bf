"""mirrorcheckout command line interface."""
