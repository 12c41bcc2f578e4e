"""Jobs: entry points de línea de comandos."""
