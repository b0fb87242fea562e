from setuptools import setup, find_packages
setup(
    name="parcel_assembly",
    version="0.0.1",
    package_dir={"": "src"},
    packages=find_packages(where="src"),
    include_package_data=True,
    python_requires=">=3.9",
    install_requires=[
        "httpx>=0.24",
        "pydantic>=2.0",
        "shapely>=2.0",
    ],
    extras_require={
        "test": ["pytest>=7.0"],
    },
    entry_points={
        'console_scripts': [
            'parcel_assembly=parcel_assembly.__main__:_safe_main'
        ]
    }
)
