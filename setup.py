from setuptools import setup

setup(name='fsratchet',
      description='Forward Secure ratcheting Public Key Encryption based on '
                  'the Canetti, Halevi and Katz binary tree encryption',
      version='0.1.0',
      author='Joseph deBlaquiere',
      author_email='jadeblaquiere@yahoo.com',
      packages=['fsratchet'],
      install_requires=['pypbc', 'pycryptodome', 'asn1'],
      extras_require={'test': ['pytest']})
