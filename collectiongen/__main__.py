from collectiongen.cli import main

main()
