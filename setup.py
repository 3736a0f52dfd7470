"""
setup.py for genqueue
"""

from setuptools import setup, find_packages

setup(
    name="genqueue",
    version="1.0.0",
    description="Bounded-concurrency generation job queue with retries and ordered document sections",
    packages=find_packages(include=['genqueue', 'genqueue.*']),
    package_data={
        'genqueue.config': ['default_config.yaml'],
    },
    python_requires='>=3.10',
    install_requires=[
        'pyyaml',
        'httpx',
        'click'
    ],
    extras_require={
        'test': [
            'pytest',
            'pytest-asyncio'
        ]
    },
    entry_points={
        'console_scripts': [
            'genqueue=genqueue.cli:cli'
        ]
    }
)
