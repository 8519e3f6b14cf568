from setuptools import setup, find_packages

def read_requirements(path='requirements.txt'):
    with open(path) as req:
        content = req.read()
        requirements = content.split('\n')
    # Filter out comments and empty lines
    return [req for req in requirements if req and not req.startswith('#')]

setup(
    name='order_admin',
    version='0.1.0',
    packages=find_packages(exclude=["tests*"]), # Automatically find packages
    include_package_data=True,
    install_requires=read_requirements(),
    extras_require={
        'test': read_requirements('requirements-dev.txt'),
    },
    entry_points={
        'console_scripts': [
            'order-admin-worker=order_admin.worker:run',
        ],
    },
    description='Order lifecycle and payment verification service using FastAPI and Temporal',
    long_description=open('README.md').read(),
    long_description_content_type='text/markdown',
    classifiers=[
        "Programming Language :: Python :: 3",
        "Operating System :: OS Independent",
        "Framework :: FastAPI",
    ],
    python_requires='>=3.10',
)
