"""
Playa Search Setup Script

Install with: pip install -e .
"""

from setuptools import setup, find_packages

setup(
    name='playa-search',
    version='0.1.0',
    description='Hybrid vector + graph retrieval for Burning Man content',
    packages=find_packages(include=['playa', 'playa.*']),
    package_data={
        'playa.config': ['*.yaml'],
    },
    install_requires=[
        'structlog>=24.1.0',
        'sqlalchemy[asyncio]>=2.0.0',
        'asyncpg>=0.29.0',
        'greenlet>=3.0.0',
        'pgvector>=0.2.5',
        'falkordb>=1.0.0',
        'aiohttp>=3.9.0',
        'tiktoken>=0.7.0',
        'numpy>=1.26.0',
        'pyyaml>=6.0.1',
        'rapidfuzz>=3.6.0',
    ],
    extras_require={
        'test': [
            'pytest>=8.0.0',
            'pytest-asyncio>=0.23.0',
        ],
    },
    python_requires='>=3.11',
    classifiers=[
        'Development Status :: 3 - Alpha',
        'Intended Audience :: Developers',
        'Programming Language :: Python :: 3.11',
        'Programming Language :: Python :: 3.12',
        'Topic :: Database :: Front-Ends',
        'Topic :: Scientific/Engineering :: Information Analysis',
    ],
)
