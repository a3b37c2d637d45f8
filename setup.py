# /setup.py
"""
Setup configuration for platformctl.
"""
from setuptools import setup, find_namespace_packages
from pathlib import Path

# Read version from platformctl.py
with open('platformctl/platformctl.py', 'r') as f:
    for line in f:
        if line.startswith('VERSION'):
            version = line.split('=')[1].strip().strip('"\'')
            break

# Read README
readme = Path(__file__).parent / 'README.md'
long_description = readme.read_text() if readme.exists() else ''

setup(
    name='platformctl',
    version=version,
    description='Provisions and tears down multi-container test platforms',
    long_description=long_description,
    long_description_content_type='text/markdown',
    packages=find_namespace_packages(include=['platformctl', 'platformctl.*']),
    include_package_data=True,
    python_requires='>=3.8',
    install_requires=[
        'docker>=7.1.0',
        'aiohttp>=3.9.0',
        'jsonschema>=4.17.0',
        'click>=8.1.7',
        'rich>=13.7.0',
        'pyyaml>=6.0.1',
        'python-dotenv>=1.0.0',
        'prometheus_client>=0.19.0',
    ],
    extras_require={
        'test': [
            'pytest>=7.4.0',
            'pytest-asyncio>=0.21.0',
        ]
    },
    entry_points={
        'console_scripts': [
            'platformctl=platformctl.platformctl:cli'
        ]
    },
    classifiers=[
        'Development Status :: 4 - Beta',
        'Environment :: Console',
        'Intended Audience :: Developers',
        'Operating System :: POSIX :: Linux',
        'Programming Language :: Python :: 3',
        'Programming Language :: Python :: 3.8',
        'Programming Language :: Python :: 3.9',
        'Programming Language :: Python :: 3.10',
        'Programming Language :: Python :: 3.11',
        'Topic :: Software Development :: Testing',
    ],
    keywords='containers, integration testing, e2e, docker',
    zip_safe=False,
    package_data={
        'platformctl': [
            'config/*.json',
        ]
    }
)
