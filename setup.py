from setuptools import setup, find_packages

setup(
    name='rke2ctl',
    version='0.1.0',
    packages=find_packages(include=['rke2ctl', 'rke2ctl.*']),
    include_package_data=True,
    package_data={
        'rke2ctl.modules.rke2': ['templates/*.j2'],
    },
    install_requires=[
        'typer[all]',
        'pydantic>=2',
        'pyyaml',
        'jinja2',
        'python-dotenv',
        'requests'
    ],
    extras_require={
        'test': [
            'pytest',
            'jsonschema',
        ],
    },
    entry_points={
        'console_scripts': [
            'rke2ctl=rke2ctl.cli:app',
            'rke2-uninstaller=rke2ctl.cli:uninstaller',
        ]
    },
    author='Your Name',
    description='Install, configure, inspect and remove a single-node RKE2 server or agent',
    classifiers=[
        'Programming Language :: Python :: 3',
        'Operating System :: POSIX :: Linux',
    ],
    python_requires='>=3.8',
)
