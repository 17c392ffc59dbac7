from setuptools import find_packages, setup

setup(
    name="tilegemm",
    version="0.1.0-alpha",
    description="Tiled mixed-precision matrix multiply on emulated matrix-acceleration tiles",
    packages=find_packages(include=["tilegemm", "tilegemm.*"]),
    python_requires=">=3.10",
    install_requires=["numpy", "ml_dtypes", "matplotlib", "tabulate", "tqdm"],
    extras_require={"test": ["pytest", "hypothesis"]},
    entry_points={"console_scripts": ["tilegemm=tilegemm.cli:main"]},
)
