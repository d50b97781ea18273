# The MIT License (MIT)
# Copyright © 2025 Entrius

"""
Operator CLI. Environment variables from a local .env file are loaded before
the engine reads its configuration (CLA_TIME_TO_WAIT, CLA_BLOCK_SIZE, GITHUB_TOKEN, CLAGUARD_STORE).
"""

from dotenv import load_dotenv

load_dotenv()
