"""Catalysh Session Meta information.
   Catalysh Session keeps DNA Center credentials encrypted on the host
   and maintains the bearer token used by every API call.
"""
__title__ = 'catalysh_session'
__description__ = (
   'Machine-bound credential vault and self-renewing session tokens '
   'for the catalysh DNA Center client.'
)
__version__ = '0.3.0'
__copyright__ = 'Copyright (c) 2024 catalysh contributors'
__author__ = 'catalysh contributors'
__license__ = 'Apache-2.0'
