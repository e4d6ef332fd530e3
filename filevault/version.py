"""FileVault Meta information.
   FileVault encrypts files at rest inside named vaults, with per-file
   or per-vault keys supplied by the user.
"""
__title__ = 'filevault'
__description__ = (
   'FileVault encrypts files at rest inside named vaults, with '
   'per-file or per-vault keys supplied by the user.'
)
__version__ = '0.3.0'
__copyright__ = 'Copyright (c) 2024 FileVault Authors'
__author__ = 'FileVault Authors'
__author_email__ = 'maintainers@filevault.dev'
__license__ = 'Apache-2.0'
__url__ = 'https://github.com/filevault/filevault'
