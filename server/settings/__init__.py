"""Main settings file.

Settings are split into components and environments, assembled with
``django-split-settings``. ``DJANGO_ENV`` selects the environment file,
``development`` by default.
"""

from os import environ

from split_settings.tools import include, optional

environ.setdefault('DJANGO_ENV', 'development')
_ENV = environ['DJANGO_ENV']

_base_settings = (
    'components/common.py',
    'components/logging.py',
    'components/storages.py',
    'components/vault.py',
    # Select the right env:
    'environments/{0}.py'.format(_ENV),
    # Optionally override some settings:
    optional('environments/local.py'),
)

# Include settings:
include(*_base_settings)
