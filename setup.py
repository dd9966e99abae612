#!/usr/bin/env python
from setuptools import setup, find_packages

with open("README.md", "r") as fh:
    long_description = fh.read()

setup(
    name='django-ldap-reconciler',
    version='0.1.0',
    description='Reconcile declared LDAP entries and attribute values against a live directory',
    long_description=long_description,
    long_description_content_type="text/markdown",
    keywords=['django', 'ldap', 'reconciliation'],
    packages=find_packages(exclude=['bin']),
    include_package_data=True,
    install_requires=[
        'django',
        'ldap_filter',
        'python-ldap',
        'structlog',
    ],
    extras_require={
        'test': [
            'pytest',
            'python-ldap-faker',
        ],
    },
    classifiers=[
        "Programming Language :: Python :: 3"
    ],
)
