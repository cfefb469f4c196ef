from devmux.cli import main

main()
