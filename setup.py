from setuptools import setup, find_packages

setup(
    name='gforest',
    version='1.0',
    packages=find_packages(exclude=['tests', 'experiments']),
    py_modules=[
        'collaborators',
        'forest',
        'leaf_values',
        'objectives',
        'serialization',
        'split_tests',
        'tree',
    ],
    description='Generic random forest with online tree growth and text persistence',
    long_description=open('README.md').read(),
    long_description_content_type='text/markdown',
    python_requires='>=3.10',
    install_requires=['numpy>=1.22'],
    extras_require={'test': ['pytest']},
)
