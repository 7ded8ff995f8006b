"""Navigator KeyStore Meta information.
   Navigator KeyStore keeps a single API key in memory and, optionally,
   persists it encrypted with a passphrase.
"""
__title__ = 'navigator_keystore'
__description__ = (
   'Navigator KeyStore keeps a single API key in memory and persists it '
   'encrypted with a passphrase-derived key.'
)
__version__ = '0.1.0'
__copyright__ = 'Copyright (c) 2023 Jesus Lara'
__author__ = 'Jesus Lara'
__author_email__ = 'jesuslarag@gmail.com'
__license__ = 'Apache-2.0'
__url__ = 'https://github.com/phenobarbital/navigator-keystore'
