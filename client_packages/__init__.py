"""
Client package loader.

Fetches named content packages (HTML, CSS, JavaScript and other content
types bundled in one multipart text format) for a client application, keeps
them in a pluggable cache, and merges reloads of the same package made under
a different language, pixel density or screen.
"""
