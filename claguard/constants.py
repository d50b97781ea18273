# The MIT License (MIT)
# Copyright © 2025 Entrius

# =============================================================================
# GitHub API
# =============================================================================
BASE_GITHUB_API_URL = "https://api.github.com"
GITHUB_PAGE_SIZE = 100

# =============================================================================
# Commit Status
# =============================================================================
STATUS_CONTEXT = "license/cla"
STATUS_TARGET_URL_BASE = "https://cla.example.org"
STATUS_DESCRIPTION_SIGNED = "Contributor License Agreement is signed."
STATUS_DESCRIPTION_NOT_SIGNED = "Contributor License Agreement is not signed yet."
STATUS_DESCRIPTION_NULL_CLA = "No Contributor License Agreement is linked to this repository."
STATUS_DESCRIPTION_NOT_REQUIRED = "All committers are exempt from signing the CLA."

# =============================================================================
# PR Comment
# =============================================================================
# Marker used to find the single CLA comment of a pull request so it is edited in place
COMMENT_MARKER = "<!-- claguard:status-comment -->"
COMMENT_HEADER_SIGNED = "All committers have signed the CLA."
COMMENT_HEADER_NOT_SIGNED = "Thank you for your submission! We really appreciate it."

# =============================================================================
# Batch Validation
# =============================================================================
ORG_VALIDATION_BLOCK_SIZE = 10  # repositories validated per block before the inter-block delay
DEFAULT_TIME_TO_WAIT_MS = 0  # 0 means unthrottled
