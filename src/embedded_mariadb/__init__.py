"""
Embedded MariaDB - packaged MariaDB/MySQL server lifecycle management

Installs a bundled server binary from a resource manifest, supervises it as a
child process, and bootstraps root, maintenance and application credentials
while tracking binary and data-directory versions.
"""

__version__ = "0.1.0"
__author__ = "Systems Engineering Portfolio"
