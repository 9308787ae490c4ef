"""dptrain command line entry points."""
