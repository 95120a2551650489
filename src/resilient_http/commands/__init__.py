"""Sub-commands of the ``resilient-http`` command line front end."""
