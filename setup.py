from setuptools import setup, find_namespace_packages

setup(
    name='hrvAnalysisToolbox',
    version='0.1.0',
    packages=find_namespace_packages(include=['analysis', 'preprocessing', 'data_handling', 'utils']),
    description='A toolbox for heart-rate-variability feature extraction from RR-interval series.',
    install_requires=[
        'numpy>=1.20',
        'scipy>=1.6,<1.15',
        'pandas',
        'statsmodels',
        'tqdm',
    ],
    extras_require={
        'test': ['pytest'],
    },
    classifiers=[
        'Programming Language :: Python :: 3',
        'License :: OSI Approved :: MIT License',
        'Operating System :: OS Independent',
    ],
    python_requires='>=3.8',
)
