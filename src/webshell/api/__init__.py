"""HTTP surface of the webshell service."""
