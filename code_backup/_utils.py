import logging

logger = logging.getLogger("code-backup")
