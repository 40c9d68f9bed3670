"""Main settings file for the project.

Settings are split into components (see ``server/settings/components``)
and combined here with ``django-split-settings``.
"""

from split_settings.tools import include

include(
    'components/common.py',
    'components/logging.py',
    'components/storages.py',
    'components/webforms.py',
)
