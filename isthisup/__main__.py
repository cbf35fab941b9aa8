from isthisup import main

main()
