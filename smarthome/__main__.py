from smarthome.app import main

main()
