# The directory client calls python-ldap through this module so that tests can
# swap ``ldapreconciler.ldap.initialize`` for python-ldap-faker's fake one
# without touching the real ``ldap`` package.
import ldap
from ldap import *  # noqa: F403

__version__ = ldap.__version__
